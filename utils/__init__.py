"""
utils - Drive feed, mail notifier and logging helpers.
"""
