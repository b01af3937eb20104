"""AI provider integrations"""
