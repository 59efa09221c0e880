"""Checkout orchestration"""
