#!/usr/bin/env python3
"""
Egyptian History Riddle Bot - Main Entry Point

This script runs the Discord riddle bot. Configure your bot token in config.json
or set the DISCORD_BOT_TOKEN environment variable.

Usage:
    python main.py

Configuration:
    1. Copy config.json and set your Discord bot token
    2. Or set DISCORD_BOT_TOKEN environment variable
    3. Point the provider section at your Ollama server, or set its type to
       "bank" to play offline from the JSON files in riddles/

Environment Variables:
    DISCORD_BOT_TOKEN: Your Discord bot token (overrides config.json)
    OLLAMA_BASE_URL: Ollama server URL (overrides provider.base_url)
    OLLAMA_MODEL: Ollama model name (overrides provider.model)
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from egypt_riddles.bot import run_bot, setup_logging


def load_config(config_path: Path = Path("config.json")):
    """Load configuration from config.json file."""
    if not config_path.exists():
        print("❌ Error: config.json not found!")
        print("Please copy config.json and configure your Discord bot token.")
        sys.exit(1)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in config.json: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading config.json: {e}")
        sys.exit(1)

    apply_environment_overrides(config)
    return config


def apply_environment_overrides(config):
    """Let environment variables override the provider section."""
    provider_config = config.setdefault('provider', {})
    if os.getenv('OLLAMA_BASE_URL'):
        provider_config['base_url'] = os.getenv('OLLAMA_BASE_URL')
    if os.getenv('OLLAMA_MODEL'):
        provider_config['model'] = os.getenv('OLLAMA_MODEL')
    return config


def get_bot_token(config):
    """Get bot token from environment variable or config file."""
    token = os.getenv('DISCORD_BOT_TOKEN')
    if token:
        return token

    token = config.get('bot', {}).get('token')
    if not token or token == "YOUR_DISCORD_BOT_TOKEN_HERE":
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print("  2. Update the 'token' field in config.json")
        sys.exit(1)

    return token


def setup_logging_from_config(config):
    """Set up logging based on configuration."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, log_config.get('level', 'INFO').upper(), logging.INFO)
    setup_logging(log_level, log_config.get('log_directory', './logs/'))


async def run_bot_with_config():
    """Run the bot with configuration."""
    config = load_config()
    setup_logging_from_config(config)
    token = get_bot_token(config)
    await run_bot(token, config)


if __name__ == "__main__":
    try:
        print("🏺 Starting Egyptian History Riddle Bot...")
        asyncio.run(run_bot_with_config())
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
