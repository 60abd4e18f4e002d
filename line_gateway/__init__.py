"""Polls the line twin's SCADA state and forwards it to MQTT or a Rapid SCADA import file."""
