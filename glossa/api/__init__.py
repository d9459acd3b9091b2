"""
HTTP job API
"""
