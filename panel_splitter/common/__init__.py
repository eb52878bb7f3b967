"""
Shared configuration, logging and errors
"""
