"""
Users microservice.

This module provides account and credential services:
- User creation with a "user created" notification
- Password hashing and verification
- Token issuing and validation
"""
