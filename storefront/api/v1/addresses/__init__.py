"""Address book"""
