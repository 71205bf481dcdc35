"""Certrenew Tests"""
