"""
Grant editing and listing.
"""
