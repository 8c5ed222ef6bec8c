"""middleware package"""
