"""Search analytics proxy: click attribution, response cache and record TTL"""
