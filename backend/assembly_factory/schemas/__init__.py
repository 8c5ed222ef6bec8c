"""schemas package"""
