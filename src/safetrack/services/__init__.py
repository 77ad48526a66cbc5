"""
SafeTrack services: tracking, emergency coordination and device registry
"""
