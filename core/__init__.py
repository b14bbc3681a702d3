"""Catalog Image Acquirer Core Package"""
