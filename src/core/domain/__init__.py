"""Modelos y entidades del dominio.

El dominio no conoce HTTP, CLI ni el protocolo de mensajería: solo
conceptos del emparejamiento y la exportación de credenciales.
"""
