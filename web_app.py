#!/usr/bin/env python3
"""
Flask web application for CareBrief.
Endpoints: weekly digest trigger, curation debug view, LINE webhook, destination management.
"""

from flask import Flask, jsonify, request
import openai
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from carebrief.briefs.weekly_digest import WeeklyDigest, deliver_digest, resolve_targets
from carebrief.config import Settings
from carebrief.delivery.line_client import LineClient
from carebrief.errors import DeliveryError
from carebrief.storage.destinations import JsonDestinationRegistry

logger = logging.getLogger(__name__)


def _parse_external_bool(value, default: bool = False) -> bool:
    """Parse truthy query parameters safely."""
    if value is None:
        return default
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def create_app(
    settings: Optional[Settings] = None,
    *,
    digest: Optional[WeeklyDigest] = None,
    line_client: Optional[LineClient] = None,
    registry: Optional[JsonDestinationRegistry] = None,
) -> Flask:
    settings = settings or Settings.from_env()
    digest = digest or WeeklyDigest.from_settings(settings)
    line_client = line_client or LineClient(settings.line_channel_access_token, timeout=settings.request_timeout)
    registry = registry or JsonDestinationRegistry(settings.destinations_path, env_default=settings.default_to)

    app = Flask(__name__)

    @app.route('/api/health')
    def health_check():
        """API health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'topic': settings.topic,
        })

    @app.route('/broadcast-weekly')
    def broadcast_weekly():
        """Build this week's digest and deliver it (``send=0`` builds only)."""
        send = _parse_external_bool(request.args.get('send', '1'), default=True)
        mode, targets = resolve_targets(request.args.get('to'), registry)
        if mode == 'push:all-groups' and not targets:
            return jsonify({'ok': False, 'error': 'no saved groups'}), 400

        run = digest.build()
        try:
            report = deliver_digest(run.messages, line_client, mode, targets, send=send)
        except DeliveryError as e:
            logger.error(f"ERROR /broadcast-weekly: {e}")
            return jsonify({'ok': False, 'error': str(e)}), 502

        return jsonify({
            'ok': not report.failed,
            'mode': report.mode,
            'sent': report.sent,
            'targetsCount': len(report.targets),
            'failed': report.failed,
            'domestic': len(run.domestic),
            'overseas': len(run.overseas),
        })

    @app.route('/debug/collect')
    def debug_collect():
        """Curation only: bucket counts and top-n samples per region."""
        try:
            n = max(1, min(20, int(request.args.get('n', '5'))))
        except ValueError:
            n = 5
        result = digest.collect()
        report = result.report

        def samples(bucket):
            return [
                {'title': s.title, 'source': s.candidate.source_name, 'link': s.link, 'score': round(s.score, 3)}
                for s in bucket[:n]
            ]

        return jsonify({
            'ok': True,
            'since_iso': report.since.isoformat() if report.since else None,
            'relevance_mode': report.relevance_mode,
            'stages': {
                'merged': report.merged,
                'in_window': report.in_window,
                'quality': report.quality,
                'relevant': report.relevant,
                'deduped': report.deduped,
            },
            'overseas_tiers': report.overseas_tiers,
            'domestic_count': len(result.domestic),
            'overseas_count': len(result.overseas),
            'domestic_samples': samples(result.domestic),
            'overseas_samples': samples(result.overseas),
        })

    @app.route('/test-message')
    def test_message():
        to = request.args.get('to') or registry.get_default_destination()
        messages = [
            {'type': 'text', 'text': '🧪 テストメッセージです（LINE Bot 接続確認）'},
            {'type': 'text', 'text': '接続は正常に動作しています ✅'},
        ]
        try:
            if to:
                line_client.push(to, messages)
            else:
                line_client.broadcast(messages)
        except DeliveryError as e:
            logger.error(f"TEST SEND ERROR: {e}")
            return jsonify({'ok': False, 'error': str(e)}), 502
        return jsonify({'ok': True, 'to': to or 'broadcast', 'count': len(messages)})

    @app.route('/webhook', methods=['POST'])
    def webhook():
        """Record where events come from; echo text messages back."""
        payload = request.get_json(silent=True) or {}
        for event in payload.get('events') or []:
            if not isinstance(event, dict):
                continue
            registry.remember_event(event)
            message = event.get('message')
            if not isinstance(message, dict):
                message = {}
            if event.get('type') == 'message' and message.get('type') == 'text' and event.get('replyToken'):
                try:
                    line_client.reply(event['replyToken'], [
                        {'type': 'text', 'text': f"受け取りました: 「{message.get('text', '')}」"},
                    ])
                except DeliveryError as e:
                    logger.error(f"reply error: {e}")
        return 'ok'

    @app.route('/debug/openai')
    def debug_openai():
        """One tiny completion to check the OpenAI key and model."""
        backend = digest.generator.backend
        try:
            output = backend.ping()
        except openai.OpenAIError as e:
            logger.error(f"OpenAI check failed: {e}")
            return jsonify({'ok': False, 'status': getattr(e, 'status_code', None), 'error': str(e)}), 500
        return jsonify({'ok': True, 'output': output})

    @app.route('/debug/line-push')
    def debug_line_push():
        to = request.args.get('to')
        if not to:
            return jsonify({'ok': False, 'error': "query 'to' is required"}), 400
        try:
            line_client.push(to, [{'type': 'text', 'text': 'LINE push ok'}])
        except DeliveryError as e:
            return jsonify({'ok': False, 'error': str(e)}), 500
        return jsonify({'ok': True})

    @app.route('/groups')
    def list_groups():
        return jsonify({
            'ok': True,
            'defaultTo': registry.get_default_destination(),
            'groups': registry.list_destinations('group'),
        })

    @app.route('/groups/test')
    def groups_test():
        to = registry.get_default_destination()
        if not to:
            return jsonify({'ok': False, 'error': 'no default destination'}), 400
        try:
            line_client.push(to, [{'type': 'text', 'text': '✅ 既定宛先へのテスト送信です'}])
        except DeliveryError as e:
            return jsonify({'ok': False, 'error': str(e)}), 502
        return jsonify({'ok': True, 'to': to})

    @app.route('/groups/default', methods=['POST'])
    def set_default_group():
        body = request.get_json(silent=True) or {}
        to = request.args.get('to') or body.get('to')
        if not to:
            return jsonify({'ok': False, 'error': 'to is required'}), 400
        registry.set_default(to)
        return jsonify({'ok': True, 'defaultTo': to})

    @app.errorhandler(404)
    def not_found(error):
        """Custom 404 handler"""
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        """Custom 500 handler"""
        logger.error(f"Internal server error: {error}")
        return jsonify({'ok': False, 'error': 'Internal server error'}), 500

    return app


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    settings = Settings.from_env()
    port = int(os.environ.get('PORT', settings.port))
    logger.info(f"🌐 Starting CareBrief on port {port}")
    create_app(settings).run(host='0.0.0.0', port=port, threaded=True)
