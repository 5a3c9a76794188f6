# src/core/__init__.py
"""
Доменный слой эскроу-движка.
Резервации, бронирования, споры, расчёты и выплаты.
"""
