#!/usr/bin/env python3
"""
Order Tax Engine - Entry Point

Computes tax adjustments for multi-line orders: EU VAT, US sales tax and
zone tables loaded from CSV.

Usage:
    python main.py calculate --order data/order.json
    python main.py calculate --file data/orders.csv --as-of 2024-06-15
    python main.py calculate --order data/order.json --display-inclusive
    python main.py zones --tax-type european_union_vat
    python main.py zones --rates data/rates.csv --as-of 2024-01-01
"""

from order_tax.cli import main

if __name__ == "__main__":
    main()
