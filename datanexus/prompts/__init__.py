"""Prompt templates"""
