"""Request framing and asyncio connections to brokers over TCP and TLS."""