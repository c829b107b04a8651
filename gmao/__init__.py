"""
GMAO: учёт техобслуживания машин карьера и производственная отчётность
"""
