"""
Brickstore - HTTP Layer
"""
