"""Data source abstraction, request variants and registry"""
