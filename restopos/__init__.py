"""
                RestoPOS Back Office

Multi-outlet restaurant point-of-sale backend: menu, tables, order
lifecycle, billing, inventory, reports and role-based access control.
"""

__version__ = "1.0.0"
