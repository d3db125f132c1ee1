"""Dues Engine - Services"""
