"""core package"""
