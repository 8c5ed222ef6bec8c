"""services package"""
