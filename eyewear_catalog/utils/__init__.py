"""Normalization, lookup and formatting helpers"""
