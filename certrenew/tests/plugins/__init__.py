"""Certrenew Plugins Tests"""
