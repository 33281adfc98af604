"""Discord integration for Rollcall.

Event cards carry Sign Up / Tentative / Decline buttons. Clicks and the
follow-up character and role choosers are routed from the bot's
``on_interaction`` into ``SignupInteractionHandler``; every committed write
redraws the card through ``RosterSynchronizer``.

Optional: if DISCORD_BOT_TOKEN is not set, nothing starts.
"""
