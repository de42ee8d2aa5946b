#!/usr/bin/env python3

"""
CareSync medication server
Barcode lookup, prescription label parsing and dosing schedule endpoints
for the CareSync mobile app
"""

import logging
import argparse
from flask import Flask, request, jsonify
from flask_cors import CORS
from dotenv import load_dotenv

# Load environment variables before config reads them
load_dotenv()

import config
from dosage_parser import parse_times_per_day, simplify_instructions
from llm_label_parser import LLMLabelParser
from medication_api_service import MedicationAPIService
from medication_record import MedicationRecord
from medication_store import MedicationStore
from prescription_label_parser import parse_prescription_label
from schedule_times import format_times, generate_scheduled_times

# Set up logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(service=None, label_parser=None, store=None):
    """
    Build the Flask app around its collaborators

    Args:
        service: MedicationAPIService for barcode lookups
        label_parser: LLMLabelParser for AI label parsing (may be disabled)
        store: MedicationStore used for duplicate checks
    """
    app = Flask(__name__)
    CORS(app)

    service = service or MedicationAPIService()
    label_parser = label_parser or LLMLabelParser()
    store = store if store is not None else MedicationStore()

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'service': 'CareSync Medication Server',
            'version': '1.0.0',
            'ai_label_parsing': label_parser.enabled
        }), 200

    @app.route('/lookup-barcode', methods=['POST'])
    def lookup_barcode():
        """
        Look up a scanned barcode
        Expects: JSON with barcode
        Returns: Medication record and the source that supplied it
        """
        try:
            data = request.get_json(silent=True)
            if not isinstance(data, dict) or not str(data.get('barcode', '')).strip():
                logger.error("No barcode in request")
                return jsonify({'error': 'barcode required'}), 400

            barcode = str(data['barcode']).strip()
            medication, error = service.lookup_medication(barcode)

            if medication is None:
                return jsonify({'success': False, 'error': error}), 404

            return jsonify({
                'success': True,
                'medication': medication.to_dict(),
                'source': medication.source
            })

        except Exception as e:
            logger.exception(f"Error looking up barcode: {e}")
            return jsonify({'error': str(e)}), 500

    @app.route('/parse-label', methods=['POST'])
    def parse_label():
        """
        Parse OCR text of a prescription label
        Expects: JSON with text
        Returns: Medication record
        """
        try:
            data = request.get_json(silent=True)
            text = data.get('text') if isinstance(data, dict) else None
            if not isinstance(text, str) or not text.strip():
                logger.error("No text in request")
                return jsonify({'error': 'text required'}), 400

            medication = parse_prescription_label(text, label_parser)
            if medication is None:
                return jsonify({
                    'success': False,
                    'error': 'Could not read prescription label. Please try again or ensure the label is clearly visible.'
                }), 422

            return jsonify({
                'success': True,
                'medication': medication.to_dict(),
                'method': medication.source
            })

        except Exception as e:
            logger.exception(f"Error parsing label: {e}")
            return jsonify({'error': str(e)}), 500

    @app.route('/parse-schedule', methods=['POST'])
    def parse_schedule():
        """Times per day, simplified instructions and reminder times for a schedule"""
        try:
            data = request.get_json(silent=True)
            if data is None:
                data = {}
            if not isinstance(data, dict):
                return jsonify({'error': 'Expected a JSON object'}), 400

            schedule = str(data.get('schedule') or '')
            form = str(data.get('form') or '')

            times_per_day = parse_times_per_day(schedule)
            return jsonify({
                'times_per_day': times_per_day,
                'simplified_instructions': simplify_instructions(schedule, form),
                'scheduled_times': format_times(generate_scheduled_times(times_per_day))
            })

        except Exception as e:
            logger.exception(f"Error parsing schedule: {e}")
            return jsonify({'error': str(e)}), 500

    @app.route('/medications', methods=['GET'])
    def list_medications():
        return jsonify({'medications': [m.to_dict() for m in store.all()]})

    @app.route('/medications', methods=['POST'])
    def add_medication():
        """Save a medication unless one with the same name or barcode exists"""
        try:
            data = request.get_json(silent=True)
            if not data:
                return jsonify({'error': 'No JSON data provided'}), 400
            if not isinstance(data, dict):
                return jsonify({'error': 'Expected a JSON object'}), 400

            try:
                medication = MedicationRecord.from_dict(data)
            except ValueError as e:
                return jsonify({'error': str(e)}), 400

            if not store.insert_if_unique(medication):
                return jsonify({'success': False, 'error': 'Medication already saved'}), 409

            return jsonify({'success': True, 'medication': medication.to_dict()}), 201

        except Exception as e:
            logger.exception(f"Error saving medication: {e}")
            return jsonify({'error': str(e)}), 500

    return app


if __name__ == '__main__':
    parser_arg = argparse.ArgumentParser(description='CareSync Medication Server')
    parser_arg.add_argument('--port', type=int, default=5001, help='Port to run the server on')
    parser_arg.add_argument('--host', type=str, default='0.0.0.0', help='Host to run the server on')
    parser_arg.add_argument('--debug', action='store_true', help='Run Flask in debug mode')
    args = parser_arg.parse_args()

    logger.info(f"Starting CareSync Medication Server on {args.host}:{args.port}")
    create_app().run(host=args.host, port=args.port, debug=args.debug)
