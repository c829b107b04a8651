"""
HTTP роутеры API
"""
