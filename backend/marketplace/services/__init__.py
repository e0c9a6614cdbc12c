"""Marketplace domain services"""
