# File: parksystem/main.py
"""
Operator console for ParkSystem

Thin argparse front end over ParkingService. State lives in the store
selected by PARKSYSTEM_STORE (memory by default, so nothing survives the
process unless redis or sql is configured).

    parksystem status
    parksystem entry ABC123 --type car --rate hour
    parksystem entry HOQ79C --type motorcycle --helmet 12
    parksystem exit ABC123 --method card --convenio
    parksystem spaces --type car
    parksystem subs add XYZ789 "Ana Pérez" --type car --cut-day 10
    parksystem report --period weekly
    parksystem export --format csv --output pagos.csv
"""

from pathlib import Path
from typing import List, Optional
import argparse
import sys

from .application.dtos import (
    ConfigUpdateDTO, EntryRequestDTO, ExitRequestDTO, OperationResultDTO, SubscriptionCreateDTO
)
from .application.parking_service import ParkingService, ParkingServiceFactory
from .application.reports import format_currency, format_duration, payment_summary
from .domain.models import (
    PaymentMethod, RateType, SPACE_LABELS, SpaceStatus, UserRole, VehicleType, VEHICLE_LABELS
)
from .infrastructure.messaging import AlertLogHandler, EventType
from .infrastructure.settings import Settings, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="parksystem", description="ParkSystem operator console")
    parser.add_argument("--role", choices=[r.value for r in UserRole],
                        help="Switch the active role before running the command")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Dashboard summary")

    entry = sub.add_parser("entry", help="Register a vehicle entry")
    entry.add_argument("plate")
    entry.add_argument("--type", dest="vehicle_type", required=True,
                       choices=[t.value for t in VehicleType])
    entry.add_argument("--rate", dest="rate_type", default=RateType.HOUR.value,
                       choices=[r.value for r in RateType])
    entry.add_argument("--helmet", dest="helmet_number")

    exit_ = sub.add_parser("exit", help="Register a vehicle exit")
    exit_.add_argument("plate", help="Plate of a parked vehicle")
    exit_.add_argument("--method", default=PaymentMethod.CASH.value,
                       choices=[m.value for m in PaymentMethod])
    exit_.add_argument("--convenio", action="store_true", help="Apply the one-hour convenio discount")
    exit_.add_argument("--quote", action="store_true", help="Only show the fee, do not register")

    spaces = sub.add_parser("spaces", help="List spaces")
    spaces.add_argument("--type", dest="vehicle_type", choices=[t.value for t in VehicleType])

    for name, help_text in (("block", "Toggle block on a space"),
                            ("reserve", "Reserve a free space"),
                            ("unreserve", "Release a reservation")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("space_id")

    subs = sub.add_parser("subs", help="Monthly subscriptions")
    subs_cmd = subs.add_subparsers(dest="subs_command", required=True)
    subs_cmd.add_parser("list")
    add = subs_cmd.add_parser("add")
    add.add_argument("plate")
    add.add_argument("client_name")
    add.add_argument("--type", dest="vehicle_type", required=True,
                     choices=[t.value for t in VehicleType])
    add.add_argument("--cut-day", type=int, default=1)
    add.add_argument("--phone")
    for name in ("pay", "delete"):
        p = subs_cmd.add_parser(name)
        p.add_argument("subscription_id")

    report = sub.add_parser("report", help="Income report")
    report.add_argument("--period", choices=["daily", "weekly", "monthly"], default="daily")
    report.add_argument("--method", choices=[m.value for m in PaymentMethod])
    report.add_argument("--type", dest="vehicle_type", choices=[t.value for t in VehicleType])

    export = sub.add_parser("export", help="Export payments")
    export.add_argument("--format", dest="fmt", choices=["csv", "json"], default="csv")
    export.add_argument("--output", type=Path)

    config = sub.add_parser("config", help="Update configuration")
    config.add_argument("--grace", type=int, dest="grace_period")
    config.add_argument("--convenio-minimum-hours", type=int, choices=[0, 1])
    config.add_argument("--rate", nargs=3, action="append", metavar=("TYPE", "KEY", "AMOUNT"),
                        help="e.g. --rate car hour 5500")

    return parser


def _print_result(result: OperationResultDTO) -> int:
    stream = sys.stdout if result.success else sys.stderr
    print(result.message, file=stream)
    return 0 if result.success else 1


def _status(service: ParkingService) -> int:
    dash = service.dashboard()
    print(f"{service.config.name}")
    print(f"  Vehículos en parqueadero: {dash.parked_total}")
    for occupancy in dash.occupancy:
        label = VEHICLE_LABELS[VehicleType(occupancy.vehicle_type)]
        print(f"  {label}: {occupancy.occupied}/{occupancy.total} ocupados")
    print(f"  Ingresos hoy: {format_currency(dash.today_income)} ({dash.today_payments} pagos)")
    print(f"  Duración promedio: {format_duration(dash.average_duration_minutes)}")
    print(f"  Mensualidades activas/pendientes: "
          f"{dash.active_subscriptions}/{dash.pending_subscriptions}")
    return 0


def _exit(service: ParkingService, args: argparse.Namespace) -> int:
    vehicle = service.find_parked_by_plate(args.plate)
    if vehicle is None:
        print(f"No hay un vehículo parqueado con placa {args.plate}", file=sys.stderr)
        return 1

    if args.quote:
        quote = service.quote_exit(vehicle.id, convenio=args.convenio)
        print(f"{quote.plate}: {format_duration(quote.duration_minutes)}")
        print(f"  Subtotal:  {format_currency(quote.subtotal)}")
        print(f"  Descuento: {format_currency(quote.discount)}")
        print(f"  Total:     {format_currency(quote.amount)}")
        return 0

    return _print_result(service.register_exit(ExitRequestDTO(
        vehicle_id=vehicle.id, method=args.method, convenio=args.convenio,
    )))


def _subs(service: ParkingService, args: argparse.Namespace) -> int:
    if args.subs_command == "list":
        for sub in service.list_subscriptions():
            print(f"{sub.id}  {sub.plate}  {sub.client_name:<24} corte {sub.cut_day:>2}  "
                  f"{format_currency(sub.price)}  {sub.status}")
        return 0
    if args.subs_command == "add":
        return _print_result(service.add_subscription(SubscriptionCreateDTO(
            plate=args.plate, client_name=args.client_name, vehicle_type=args.vehicle_type,
            cut_day=args.cut_day, phone=args.phone,
        )))
    if args.subs_command == "pay":
        return _print_result(service.pay_subscription(args.subscription_id))
    return _print_result(service.delete_subscription(args.subscription_id))


def _report(service: ParkingService, args: argparse.Namespace) -> int:
    for point in service.income_report(args.period):
        print(f"{point.label:>8}  {format_currency(point.amount)}")
    summary = payment_summary(
        service.state.payments,
        method=PaymentMethod(args.method) if args.method else None,
        vehicle_type=VehicleType(args.vehicle_type) if args.vehicle_type else None,
    )
    print(f"Total: {format_currency(summary.total)} en {summary.count} pagos")
    for method, amount in summary.by_method.items():
        print(f"  {method}: {format_currency(amount)}")
    return 0


def _export(service: ParkingService, args: argparse.Namespace) -> int:
    result = service.export_data(args.fmt)
    if not result.success:
        return _print_result(result)
    if args.output:
        args.output.write_text(result.content, encoding="utf-8")
        print(f"Exportado a {args.output}")
    else:
        sys.stdout.write(result.content)
    return 0


def _config(service: ParkingService, args: argparse.Namespace) -> int:
    try:
        rates = {}
        for vehicle_type, key, amount in args.rate or []:
            rates.setdefault(vehicle_type, {})[key] = int(amount)
        request = ConfigUpdateDTO(
            grace_period=args.grace_period,
            convenio_minimum_hours=args.convenio_minimum_hours,
            rates=rates or None,
        )
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        print(f"Configuración inválida: {e}", file=sys.stderr)
        return 1
    return _print_result(service.update_config(request))


def run(args: argparse.Namespace, service: ParkingService) -> int:
    if args.role:
        service.set_role(UserRole(args.role))

    if args.command == "status":
        return _status(service)
    if args.command == "entry":
        return _print_result(service.register_entry(EntryRequestDTO(
            plate=args.plate, vehicle_type=args.vehicle_type,
            rate_type=args.rate_type, helmet_number=args.helmet_number,
        )))
    if args.command == "exit":
        return _exit(service, args)
    if args.command == "spaces":
        vehicle_type = VehicleType(args.vehicle_type) if args.vehicle_type else None
        for space in service.list_spaces(vehicle_type):
            print(f"{space.label}  {space.id:<14} {SPACE_LABELS[SpaceStatus(space.status)]}")
        return 0
    if args.command == "block":
        return _print_result(service.toggle_space_block(args.space_id))
    if args.command == "reserve":
        return _print_result(service.reserve_space(args.space_id))
    if args.command == "unreserve":
        return _print_result(service.unreserve_space(args.space_id))
    if args.command == "subs":
        return _subs(service, args)
    if args.command == "report":
        return _report(service, args)
    if args.command == "export":
        return _export(service, args)
    return _config(service, args)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env(args.env_file)
    configure_logging(settings.log_level)

    service = ParkingServiceFactory.create_from_settings(settings)
    service.event_bus.subscribe(EventType.ALERT, AlertLogHandler())
    return run(args, service)


if __name__ == "__main__":
    sys.exit(main())
