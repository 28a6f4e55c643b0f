"""
WhatsApp Session Examples

- echo_bot.py: Echoes every text message back to its chat
"""
