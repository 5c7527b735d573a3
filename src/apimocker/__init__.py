"""
apimocker - configuration-driven mock REST API server
"""

__version__ = '1.0.0'
