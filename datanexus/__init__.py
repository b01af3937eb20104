"""DataNexus multi-source query engine"""
