"""Request and response models for the marketplace API"""
