"""seeds package"""
