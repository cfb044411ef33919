"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import mimetypes
import sys
import wave
from pathlib import Path

from dotenv import load_dotenv

from .ai import create_service
from .alerts import PriceAlerts
from .archive import Archive
from .chat import ChatAssistant
from .config import load_config
from .db import RecordStore
from .errors import (
    AIFormatError,
    AIRequestError,
    DeviceUnavailableError,
    DuplicateKeyError,
    OptiPanierError,
    SessionError,
    StorageError,
)
from .models import ArchivedReceipt, LoyaltyCard, new_record_id
from .settings import Settings

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="optipanier",
        description="OptiPanier — tickets de caisse, budget et assistant d'achat",
    )
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="Chemin du fichier de configuration (TOML)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Afficher les journaux de débogage"
    )

    sub = parser.add_subparsers(dest="command")

    # scan
    scan_parser = sub.add_parser("scan", help="Analyser la photo d'un ticket de caisse")
    scan_parser.add_argument("image", type=str, help="Image du ticket")
    scan_parser.add_argument("--save", action="store_true", help="Archiver le ticket analysé")
    scan_parser.add_argument("--json", action="store_true", help="Sortie au format JSON")

    # receipts
    rcp_parser = sub.add_parser("receipts", help="Consulter les tickets archivés")
    rcp_sub = rcp_parser.add_subparsers(dest="action", required=True)
    rcp_sub.add_parser("list", help="Lister les tickets, du plus récent au plus ancien")
    show = rcp_sub.add_parser("show", help="Afficher le détail d'un ticket")
    show.add_argument("id", type=str)
    rdel = rcp_sub.add_parser("delete", help="Supprimer un ticket")
    rdel.add_argument("id", type=str)

    # cards
    card_parser = sub.add_parser("cards", help="Gérer les cartes de fidélité")
    card_sub = card_parser.add_subparsers(dest="action", required=True)
    cscan = card_sub.add_parser("scan", help="Lire une carte depuis une photo")
    cscan.add_argument("image", type=str)
    cscan.add_argument("--save", action="store_true", help="Enregistrer la carte lue")
    cadd = card_sub.add_parser("add", help="Enregistrer une carte")
    cadd.add_argument("--store", type=str, required=True)
    cadd.add_argument("--number", type=str, required=True)
    card_sub.add_parser("list", help="Lister les cartes")
    cdel = card_sub.add_parser("delete", help="Supprimer une carte")
    cdel.add_argument("id", type=str)

    # budget
    budget_parser = sub.add_parser("budget", help="Total dépensé et articles les plus achetés")
    budget_parser.add_argument("--top", type=int, default=5)

    # compare
    cmp_parser = sub.add_parser("compare", help="Comparer le prix d'un article")
    cmp_parser.add_argument("item", type=str)
    cmp_parser.add_argument("--json", action="store_true", help="Sortie au format JSON")

    # alerts
    alert_parser = sub.add_parser("alerts", help="Alertes de prix")
    alert_sub = alert_parser.add_subparsers(dest="action", required=True)
    alert_sub.add_parser("list", help="Lister les produits suivis")
    aadd = alert_sub.add_parser("add", help="Suivre un produit")
    aadd.add_argument("name", type=str)
    adel = alert_sub.add_parser("delete", help="Ne plus suivre un produit")
    adel.add_argument("id", type=str)
    alert_sub.add_parser("check", help="Chercher les meilleures offres")

    # optimize
    opt_parser = sub.add_parser("optimize", help="Optimiser une liste de courses")
    opt_parser.add_argument("items", type=str, nargs="+")
    opt_parser.add_argument("--lat", type=float, default=None, help="Latitude")
    opt_parser.add_argument("--lon", type=float, default=None, help="Longitude")
    opt_parser.add_argument(
        "--speak", type=str, default=None, metavar="FILE",
        help="Lire le plan à voix haute dans un fichier WAV",
    )

    # chat
    sub.add_parser("chat", help="Discuter avec l'assistant")

    # speak
    speak_parser = sub.add_parser("speak", help="Synthèse vocale d'un texte")
    speak_parser.add_argument("text", type=str)
    speak_parser.add_argument("--out", type=str, required=True, metavar="FILE")

    # live
    sub.add_parser("live", help="Conversation vocale en direct")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)

    commands = {
        "scan": _cmd_scan,
        "receipts": _cmd_receipts,
        "cards": _cmd_cards,
        "budget": _cmd_budget,
        "compare": _cmd_compare,
        "alerts": _cmd_alerts,
        "optimize": _cmd_optimize,
        "chat": _cmd_chat,
        "speak": _cmd_speak,
        "live": _cmd_live,
    }
    try:
        asyncio.run(commands[args.command](config, args))
    except StorageError as e:
        print(f"Erreur de la base de données : {e}", file=sys.stderr)
        sys.exit(1)
    except AIFormatError as e:
        print(f"Réponse de l'IA illisible : {e}", file=sys.stderr)
        sys.exit(1)
    except AIRequestError as e:
        print(f"La requête à l'IA a échoué : {e}", file=sys.stderr)
        sys.exit(1)
    except OptiPanierError as e:
        print(f"Erreur : {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


async def _open_store(config) -> RecordStore:
    store = RecordStore(config.storage.db_path)
    try:
        await store.initialize()
    except StorageError as e:
        # Nothing works without the database
        print(
            "Impossible d'ouvrir la base de données locale. "
            f"Aucune donnée ne peut être lue ni enregistrée.\n  {e}",
            file=sys.stderr,
        )
        sys.exit(1)
    return store


def _read_image(path: str) -> tuple[bytes, str]:
    p = Path(path)
    if not p.exists():
        print(f"Fichier introuvable : {path}", file=sys.stderr)
        sys.exit(1)
    mime_type = mimetypes.guess_type(path)[0] or "image/jpeg"
    return p.read_bytes(), mime_type


async def _cmd_scan(config, args) -> None:
    image, mime_type = _read_image(args.image)
    service = create_service(config)
    print("🔍 Analyse du ticket...")
    data = await service.analyze_receipt(image, mime_type)

    if args.json:
        out: dict = {
            "store": data.store,
            "date": data.date,
            "items": [{"name": i.name, "price": i.price} for i in data.items],
        }
        if data.total is not None:
            out["total"] = data.total
        print(json.dumps(out, ensure_ascii=False, indent=2))
    else:
        print(f"\n🧾 {data.store} — {data.date}")
        for item in data.items:
            print(f"  {item.name:<30} {item.price:>8.2f} €")
        if data.total is not None:
            print(f"  {'Total':<30} {data.total:>8.2f} €")

    if not args.save:
        return

    store = await _open_store(config)
    try:
        receipt = ArchivedReceipt.from_data(
            data, image_base64=base64.b64encode(image).decode("ascii")
        )
        await Archive(store).add_receipt(receipt)
        print(f"✅ Ticket sauvegardé dans vos archives (id {receipt.id})")
    finally:
        store.close()


async def _cmd_receipts(config, args) -> None:
    store = await _open_store(config)
    try:
        archive = Archive(store)
        match args.action:
            case "list":
                receipts = await archive.list_receipts_by_recency()
                if not receipts:
                    print("Aucun ticket archivé.")
                    return
                for r in receipts:
                    total = f"{r.total:.2f} €" if r.total is not None else "—"
                    print(f"  {r.id}  {r.date:<12} {r.store:<20} {total:>10}  ({len(r.items)} articles)")
            case "show":
                receipt = await archive.get_receipt(args.id)
                if receipt is None:
                    print(f"Ticket introuvable : {args.id}", file=sys.stderr)
                    sys.exit(1)
                print(f"🧾 {receipt.store} — {receipt.date}")
                for item in receipt.items:
                    print(f"  {item.name:<30} {item.price:>8.2f} €")
                if receipt.total is not None:
                    print(f"  {'Total':<30} {receipt.total:>8.2f} €")
            case "delete":
                await archive.delete_receipt(args.id)
                print("Ticket supprimé.")
    finally:
        store.close()


async def _cmd_cards(config, args) -> None:
    if args.action == "scan":
        image, mime_type = _read_image(args.image)
        service = create_service(config)
        try:
            details = await service.analyze_loyalty_card(image, mime_type)
        except (AIRequestError, AIFormatError) as e:
            logger.error("Analyse de la carte échouée : %s", e)
            print(
                "L'analyse de la carte a échoué. Saisissez les détails avec "
                "`optipanier cards add --store ... --number ...`.",
                file=sys.stderr,
            )
            sys.exit(1)
        print(f"💳 {details.store} : {details.number}")
        if not args.save:
            return
        store_name, number = details.store, details.number
    elif args.action == "add":
        store_name, number = args.store, args.number
    else:
        store_name = number = ""

    store = await _open_store(config)
    try:
        archive = Archive(store)
        match args.action:
            case "scan" | "add":
                if not store_name.strip() or not number.strip():
                    print("Le nom du magasin et le numéro de la carte sont requis.", file=sys.stderr)
                    sys.exit(1)
                card = LoyaltyCard(id=new_record_id(), store=store_name.strip(), number=number.strip())
                try:
                    await archive.add_loyalty_card(card)
                except DuplicateKeyError:
                    print("Une carte avec cet identifiant existe déjà.", file=sys.stderr)
                    sys.exit(1)
                print(f"✅ Carte enregistrée (id {card.id})")
            case "list":
                cards = await archive.list_loyalty_cards()
                if not cards:
                    print("Aucune carte de fidélité.")
                    return
                for c in cards:
                    print(f"  {c.id}  {c.store:<20} {c.number}")
            case "delete":
                await archive.delete_loyalty_card(args.id)
                print("Carte supprimée.")
    finally:
        store.close()


async def _cmd_budget(config, args) -> None:
    store = await _open_store(config)
    try:
        summary = await Archive(store).budget_summary(top_n=args.top)
    finally:
        store.close()

    if summary.total_spent == 0 and not summary.top_items:
        print("Aucune donnée de ticket disponible. Commencez par scanner des tickets.")
        return
    print(f"💶 Total dépensé (tickets archivés) : {summary.total_spent:.2f} €")
    print(f"\nTop {args.top} des articles les plus achetés :")
    for item in summary.top_items:
        print(f"  {item.name:<30} acheté {item.count} fois")


async def _cmd_compare(config, args) -> None:
    if not args.item.strip():
        print("Veuillez entrer un nom d'article.", file=sys.stderr)
        sys.exit(1)
    service = create_service(config)
    print(f"🔎 Comparaison des prix pour « {args.item} »...")
    results = await service.compare_item_prices(args.item)

    if args.json:
        print(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
        return
    if not results:
        print("Aucun prix trouvé.")
        return
    for r in sorted(results, key=lambda x: x.price):
        promo = f"  [{r.promotion}]" if r.has_promotion() else ""
        print(f"  {r.store:<15} {r.product_name:<35} {r.price:>7.2f} €{promo}")


async def _cmd_alerts(config, args) -> None:
    settings = Settings(config.storage.settings_path)
    alerts = PriceAlerts(settings, create_service(config))

    match args.action:
        case "add":
            item = alerts.add(args.name)
            if item is None:
                print("Le nom du produit est vide.", file=sys.stderr)
                sys.exit(1)
            print(f"🔔 Produit suivi : {item.name} (id {item.id})")
            return
        case "delete":
            alerts.delete(args.id)
            print("Alerte supprimée.")
            return
        case "check":
            print("🔎 Vérification des offres...")
            items = await alerts.check_all()
        case _:
            items = alerts.list()

    if not items:
        print("Ajoutez vos produits favoris pour recevoir des alertes sur les meilleures offres.")
        return
    for item in items:
        print(f"  {item.id}  {item.name}")
        if item.deal is None:
            print("      Pas d'info d'offre pour le moment.")
            continue
        print(f"      Meilleure offre : {item.deal.price:.2f} € chez {item.deal.store}")
        if item.deal.has_promotion():
            print(f"      {item.deal.promotion}")


async def _cmd_optimize(config, args) -> None:
    location = None
    if args.lat is not None and args.lon is not None:
        location = (args.lat, args.lon)

    store = await _open_store(config)
    try:
        history = await Archive(store).list_receipts_by_recency()
    finally:
        store.close()

    service = create_service(config)
    print("🛒 Optimisation de la liste...")
    result = await service.optimize_shopping_list(args.items, location, history)
    print()
    print(result.text)
    if result.sources:
        print("\nSources :")
        for i, source in enumerate(result.sources, 1):
            print(f"  {i}. {source.title} — {source.uri}")

    if args.speak:
        pcm = await service.synthesize_speech(result.text)
        _write_wav(Path(args.speak), pcm, config.live.output_sample_rate)
        print(f"\n🔊 Audio enregistré : {args.speak}")


async def _cmd_chat(config, args) -> None:
    store = await _open_store(config)
    try:
        assistant = ChatAssistant(
            create_service(config), Archive(store), Settings(config.storage.settings_path)
        )
        greeting = await assistant.open()
        print(f"🤖 {greeting.text}")
        if assistant.recent_queries:
            print("Recherches récentes : " + " | ".join(assistant.recent_queries))
        print("(Entrée vide ou Ctrl+D pour quitter)\n")

        while True:
            try:
                text = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if not text.strip():
                break
            reply = await assistant.send(text)
            print(f"\n🤖 {reply.text}")
            for i, source in enumerate(reply.sources, 1):
                print(f"   {i}. {source.title} — {source.uri}")
            print()
    finally:
        store.close()


async def _cmd_speak(config, args) -> None:
    service = create_service(config)
    pcm = await service.synthesize_speech(args.text)
    _write_wav(Path(args.out), pcm, config.live.output_sample_rate)
    print(f"🔊 Audio enregistré : {args.out}")


async def _cmd_live(config, args) -> None:
    from .live import LiveAssistant

    service = create_service(config)
    assistant = LiveAssistant(
        service.live_connect, config.live, on_transcript=lambda line: print(line)
    )
    print("Connexion à l'assistant...")
    try:
        await assistant.start()
    except DeviceUnavailableError as e:
        print(f"Micro ou haut-parleur indisponible : {e}", file=sys.stderr)
        sys.exit(1)
    except SessionError as e:
        print(f"Une erreur est survenue : {e}", file=sys.stderr)
        sys.exit(1)

    print("🎙  Écoute en cours... (Ctrl+C pour arrêter)")
    try:
        await assistant.wait_closed()
    finally:
        await assistant.stop()

    if assistant.last_error is not None:
        print(f"Une erreur est survenue : {assistant.last_error}", file=sys.stderr)
        sys.exit(1)


def _write_wav(path: Path, pcm: bytes, sample_rate: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm)
