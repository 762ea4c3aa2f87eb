"""Decoding and analysis of EoIP, EoIPv6 and UDP-encapsulated tunnel captures."""