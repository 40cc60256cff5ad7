"""
Shared code for the MedicinaHub portal services
"""
