"""Guest sessions and identity resolution"""
