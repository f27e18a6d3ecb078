# beep_server.py
import argparse
import functools
import logging
import sys

from aiohttp import web

from beep_request import parse_beep_request
from config_manager import CONFIG_FILE, load_buzzer_config
from gpio_pin import OutputPin
from tone_controller import EmitOutcome, ToneController, pattern_method

logger = logging.getLogger(__name__)

CONTROLLER_KEY = web.AppKey("controller", ToneController)
CONFIG_KEY = web.AppKey("config", dict)


def _unavailable():
    return web.json_response({"success": False, "message": "Buzzer not available"})


async def collect_params(request):
    """Query parameters merged over a JSON or form body (POST only)"""
    params = {}
    if request.method == "POST" and request.body_exists:
        if request.content_type == "application/json":
            try:
                body = await request.json()
            except ValueError as e:
                logger.warning(f"Ignoring malformed JSON body: {e}")
                body = None
            if isinstance(body, dict):
                params.update(body)
        elif request.content_type in ("application/x-www-form-urlencoded", "multipart/form-data"):
            params.update(await request.post())
    params.update(request.query)
    return params


# Web server routes
async def beep(request):
    controller = request.app[CONTROLLER_KEY]
    config = request.app[CONFIG_KEY]
    try:
        params = await collect_params(request)
        beep_request = parse_beep_request(params, config)
        logger.debug(f"{request.method} /beep from {request.remote}: {beep_request}")

        await controller.initialize()

        if beep_request.pattern:
            name = beep_request.pattern.upper()
            outcome = await controller.start_pattern(beep_request.pattern, beep_request.method)
            if outcome is EmitOutcome.UNAVAILABLE:
                return _unavailable()
            if outcome is EmitOutcome.BUSY:
                return web.json_response({
                    "success": True,
                    "skipped": True,
                    "message": "Buzzer busy",
                    "pattern": name,
                })
            return web.json_response({
                "success": True,
                "message": f"{name} pattern started",
                "pattern": name,
                "method": pattern_method(beep_request.pattern, beep_request.method),
            })

        outcome = await controller.emit(
            beep_request.duration_ms, beep_request.frequency_hz, beep_request.method
        )
        if outcome is EmitOutcome.UNAVAILABLE:
            return _unavailable()

        result = {
            "success": True,
            "message": "Beep!",
            "duration": beep_request.duration_ms,
            "frequency": beep_request.frequency_hz,
            "method": beep_request.method,
        }
        if outcome is EmitOutcome.BUSY:
            result["skipped"] = True
            result["message"] = "Buzzer busy"
        return web.json_response(result)

    except Exception as e:
        logger.exception(f"Buzzer error: {e}")
        return web.json_response({"success": False, "error": str(e)}, status=500)


async def status(request):
    return web.json_response(request.app[CONTROLLER_KEY].status())


async def on_startup(app):
    state = await app[CONTROLLER_KEY].initialize()
    logger.info(f"Buzzer state: {state.value}")


async def on_cleanup(app):
    logger.info("Shutting down...")
    await app[CONTROLLER_KEY].close()


def build_controller(config):
    pin_factory = functools.partial(OutputPin, config["pin"], active_low=config["active_low"])
    return ToneController(pin_factory, shutdown_timeout_s=config["shutdown_timeout_s"])


def create_app(config, controller=None):
    """Web application with the controller injected; builds one from config if omitted"""
    if controller is None:
        controller = build_controller(config)

    app = web.Application()
    app[CONFIG_KEY] = config
    app[CONTROLLER_KEY] = controller
    app.router.add_get("/beep", beep)
    app.router.add_post("/beep", beep)
    app.router.add_get("/status", status)
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="GPIO buzzer HTTP server")
    parser.add_argument("--config", default=CONFIG_FILE, help=f"JSON config file (default: {CONFIG_FILE})")
    parser.add_argument("--host", help="Host for HTTP server (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port for HTTP server (default: 8080)")
    parser.add_argument("--pin", type=int, help="BCM pin driving the buzzer (default: 18)")
    parser.add_argument("--active-low", dest="active_low", action="store_const", const=True,
                        help="Buzzer is switched through a PNP transistor (low = on)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_buzzer_config(args.config, overrides={
            "host": args.host,
            "port": args.port,
            "pin": args.pin,
            "active_low": args.active_low,
        })
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    app = create_app(config)
    logger.info(f"Buzzer server on http://{config['host']}:{config['port']}/beep (GPIO {config['pin']})")

    # run_app handles SIGINT/SIGTERM and runs on_cleanup, which releases the pin
    try:
        web.run_app(app, host=config["host"], port=config["port"], print=None)
    except Exception as e:
        logger.error(f"Server error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
