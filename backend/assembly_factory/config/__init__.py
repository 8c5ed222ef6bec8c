"""config package"""
