"""Catalog Image Acquirer acquisition package: strategies, extraction, validation, persistence"""
