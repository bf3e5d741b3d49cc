from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Prompt:
    id: str
    text: str
    category: str  # icebreaker | reflection | fun | deep
    response_type: str = "text"  # text | image


# Order matters: assignment indexes into this tuple
PROMPT_CATALOG: Tuple[Prompt, ...] = (
    # Icebreakers
    Prompt("p1", "What's the best meal you've had recently?", "icebreaker"),
    Prompt("p2", "What show are you currently binge-watching?", "icebreaker"),
    Prompt("p3", "What's the last song you had stuck in your head?", "icebreaker"),
    Prompt("p4", "If you could travel anywhere tomorrow, where would you go?", "icebreaker"),
    Prompt("p5", "What's something small that made you smile today?", "icebreaker"),

    # Reflection
    Prompt("p6", "What's something you've learned about yourself this year?", "reflection"),
    Prompt("p7", "What's a goal you're working towards right now?", "reflection"),
    Prompt("p8", "What's the best advice someone has given you?", "reflection"),
    Prompt("p9", "What's something you wish you had more time for?", "reflection"),
    Prompt("p10", "What's a skill you'd love to learn?", "reflection"),

    # Fun
    Prompt("p11", "If you could have any superpower for a day, what would it be?", "fun"),
    Prompt("p12", "What's your go-to karaoke song?", "fun"),
    Prompt("p13", "If you could have dinner with anyone (alive or dead), who would it be?", "fun"),
    Prompt("p14", "What's the weirdest food combo you secretly love?", "fun"),
    Prompt("p15", "If your life had a theme song, what would it be?", "fun"),

    # Deep
    Prompt("p16", "What's something you've changed your mind about recently?", "deep"),
    Prompt("p17", "What does friendship mean to you?", "deep"),
    Prompt("p18", "What's a memory you'd love to relive?", "deep"),
    Prompt("p19", "What's something you're proud of that you don't talk about often?", "deep"),
    Prompt("p20", "What makes you feel most like yourself?", "deep"),

    # Image prompts
    Prompt("p21", "Take a photo of something that made you smile today", "icebreaker", "image"),
    Prompt("p22", "Show us your current view right now", "icebreaker", "image"),
    Prompt("p23", "Share a pic of your last meal", "fun", "image"),
    Prompt("p24", "What's on your desk right now? Show us!", "fun", "image"),
    Prompt("p25", "Share a photo of something that inspires you", "reflection", "image"),
    Prompt("p26", "Show us your favorite spot in your home", "icebreaker", "image"),
    Prompt("p27", "Share a selfie with your current mood", "fun", "image"),
    Prompt("p28", "Take a photo of something you're working on", "reflection", "image"),
    Prompt("p29", "Show us the last photo in your camera roll", "fun", "image"),
    Prompt("p30", "Share a photo of something beautiful you noticed today", "deep", "image"),
)
