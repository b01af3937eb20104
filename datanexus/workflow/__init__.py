"""LangGraph chat workflow"""
