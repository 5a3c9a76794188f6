"""
Ops-команды для поддержки: ручной расчёт, финализация, проходы воркеров.
"""
