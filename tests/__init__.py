"""
SpotiSearch Test Suite
"""
