"""Generate Telegraf OPC-UA inputs from address-space XML and provision an IOT2050 gateway."""

__version__ = "0.4.0"
