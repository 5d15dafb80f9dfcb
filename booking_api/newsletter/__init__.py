"""Newsletter domain: subscribers, campaigns, templates and unsubscriptions"""
