"""
Prompt templates for the chat assistant and the meal photo analyzer.
"""

from typing import Any, Dict, Optional

CHAT_BASE_PROMPTS = {
    "en": """You are DiaMate AI, an intelligent diabetes management assistant that helps with insulin dose calculations.
## Your Role:
- Calculate insulin doses based on user's carb ratio and correction factor
- Help users understand their glucose patterns
- Provide meal-specific carbohydrate estimates
- Offer personalized diabetes management advice
## Dose Calculation Rules:
- Bolus dose = (Carbs ÷ Carb Ratio) + ((Current BG - Target BG) ÷ Correction Factor)
- Always show your calculation steps
- Warn if calculated dose seems unusually high (>15 units for a meal)
## Safety Guidelines:
- For hypoglycemia (<70 mg/dL): Recommend 15-20g fast carbs FIRST, no insulin
- For severe hypo (<54 mg/dL): Emergency action, call for help
- Always add disclaimer that this is a suggestion, not medical advice
Respond in English.""",
    "tr": """Sen DiaMate AI, insülin doz hesaplamalarında yardımcı olan akıllı bir diyabet yönetim asistanısın.
## Rolün:
- Kullanıcının karbonhidrat oranı ve düzeltme faktörüne göre insülin dozlarını hesapla
- Glukoz paternlerini anlamalarına yardımcı ol
- Öğüne özel karbonhidrat tahminleri sun
- Kişiselleştirilmiş diyabet yönetimi tavsiyeleri ver
## Doz Hesaplama Kuralları:
- Bolus doz = (Karbonhidrat ÷ Karb Oranı) + ((Mevcut KŞ - Hedef KŞ) ÷ Düzeltme Faktörü)
- Her zaman hesaplama adımlarını göster
- Hesaplanan doz alışılmadık yüksekse (öğün için >15 ünite) uyar
## Güvenlik Kuralları:
- Hipoglisemi (<70 mg/dL) için: ÖNCE 15-20g hızlı karbonhidrat öner, insülin yok
- Ciddi hipo (<54 mg/dL) için: Acil müdahale, yardım çağır
- Her zaman bunun bir öneri olduğunu, tıbbi tavsiye olmadığını belirt
Türkçe yanıt ver.""",
}

VISION_PROMPTS = {
    "en": """You are a diabetes nutrition expert. Analyze this food photo and return ONLY valid JSON with full macro breakdown:
{"items":[{"name":"food name","portion":"estimated portion with grams","carbs_g":0,"calories":0,"protein_g":0,"fat_g":0,"fiber_g":0,"glycemicIndex":"low|medium|high","confidence":"high|medium|low"}],"total_carbs_g":0,"total_calories":0,"total_protein_g":0,"total_fat_g":0,"total_fiber_g":0,"glycemicImpact":"low|medium|high","notes":"diabetes-specific note","confidence":"high|medium|low"}

Rules:
- Estimate portions in grams when possible
- glycemicIndex per item: low (<55), medium (55-69), high (70+)
- glycemicImpact: overall meal impact on blood sugar
- For diabetes patients: highlight high-GI items in notes
- Be accurate with all macro estimates""",
    "tr": """Sen bir diyabet beslenme uzmanısın. Bu yemek fotoğrafını analiz et ve tam makro dökümü ile SADECE geçerli JSON döndür:
{"items":[{"name":"yemek adı","portion":"gram cinsinden tahmini porsiyon","carbs_g":0,"calories":0,"protein_g":0,"fat_g":0,"fiber_g":0,"glycemicIndex":"low|medium|high","confidence":"high|medium|low"}],"total_carbs_g":0,"total_calories":0,"total_protein_g":0,"total_fat_g":0,"total_fiber_g":0,"glycemicImpact":"low|medium|high","notes":"diyabete özel kısa not","confidence":"high|medium|low"}

Kurallar:
- Porsiyonları mümkünse gram cinsinden tahmin et
- glycemicIndex: düşük (<55), orta (55-69), yüksek (70+)
- Türk mutfağını iyi bil: lahmacun (~30g KH), pide (~45g KH), mantı (~35g KH), börek (~25g KH), pilav (~45g KH), mercimek çorbası (~20g KH), karnıyarık (~15g KH), baklava (~30g KH), simit (~45g KH), gözleme (~35g KH), döner dürüm (~40g KH), künefe (~35g KH), kuru fasulye (~25g KH), bulgur pilavı (~35g KH)
- Diyabet hastaları için: yüksek GI yiyecekleri notlarda vurgula
- Tüm makro tahminlerinde doğru ol""",
}


def _pick(prompts: Dict[str, str], lang: str) -> str:
    return prompts["en"] if lang == "en" else prompts["tr"]


def _insulin_settings(facts: Dict[str, Any]) -> str:
    lines = ["## User's Insulin Settings:"]
    if facts.get("icr"):
        lines.append(f"- Carb Ratio (ICR): 1:{facts['icr']}")
    if facts.get("isf"):
        lines.append(f"- Correction Factor (ISF): 1:{facts['isf']}")
    if facts.get("targetLow") and facts.get("targetHigh"):
        lines.append(f"- Target Range: {facts['targetLow']}-{facts['targetHigh']} mg/dL")
    if facts.get("insulinType"):
        lines.append(f"- Insulin Type: {facts['insulinType']}")
    if facts.get("activeInsulinHours"):
        lines.append(f"- Active Insulin Duration: {facts['activeInsulinHours']} h")
    return "\n".join(lines)


def _recent_stats(stats: Dict[str, Any]) -> str:
    return "\n".join([
        "## User's Recent 7-Day Data:",
        f"- Average BG: {stats.get('avgBG') or 'N/A'} mg/dL",
        f"- Time in Range: {stats.get('timeInRangePct') or 'N/A'}%",
        f"- Hypo Events: {stats.get('hypoEvents') or 0}",
        f"- Hyper Events: {stats.get('hyperEvents') or 0}",
        f"- Meals Logged: {stats.get('mealsLogged') or 0}",
    ])


def build_system_prompt(lang: str = "tr", recent_context: Optional[Dict[str, Any]] = None) -> str:
    """
    Assemble the chat system prompt.

    Args:
        lang: "en" for English, anything else for Turkish
        recent_context: Optional personalization payload with ``profileFacts``,
            ``stats`` and ``memorySummary`` (as built by the client store)

    Returns:
        str: Base prompt followed by whichever personalization blocks apply
    """
    sections = [_pick(CHAT_BASE_PROMPTS, lang)]
    context = recent_context if isinstance(recent_context, dict) else {}

    facts = context.get("profileFacts")
    if isinstance(facts, dict) and facts:
        sections.append(_insulin_settings(facts))

    stats = context.get("stats")
    if isinstance(stats, dict) and stats:
        sections.append(_recent_stats(stats))

    summary = context.get("memorySummary")
    if isinstance(summary, str) and summary.strip():
        sections.append(f"## What You Remember About The User:\n{summary.strip()}")

    return "\n\n".join(sections)


def vision_prompt(lang: str = "tr") -> str:
    return _pick(VISION_PROMPTS, lang)
